# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import unittest

from import_pipeline.normalize import PARSE_ERROR, FeedError
from import_pipeline.xml_feed import clean_description, parse_xml_feed

UNION_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<Carga xmlns="http://www.example.com/carga">
  <Imoveis>
    <Imovel>
      <CodigoImovel>AP-001</CodigoImovel>
      <TituloImovel>Apartamento em Moema</TituloImovel>
      <TipoImovel>Apartamento</TipoImovel>
      <PrecoVenda>850.000,00</PrecoVenda>
      <QtdDormitorios>3</QtdDormitorios>
      <Bairro>Moema</Bairro>
      <Cidade>São Paulo</Cidade>
      <Observacao><![CDATA[<p>Lindo <b>apartamento</b></p>]]></Observacao>
      <Fotos>
        <Foto><URLArquivo>https://cdn.test/a1.jpg</URLArquivo></Foto>
        <Foto principal="1"><URLArquivo>https://cdn.test/a2.jpg</URLArquivo></Foto>
      </Fotos>
    </Imovel>
    <Imovel>
      <CodigoImovel>CA-002</CodigoImovel>
      <TituloImovel>Casa no Morumbi</TituloImovel>
      <PrecoLocacao>7500</PrecoLocacao>
    </Imovel>
  </Imoveis>
</Carga>
""".encode("utf-8")

LISTINGS_FEED = b"""<ListingDataFeed>
  <Listings>
    <Listing>
      <ListingID>L-77</ListingID>
      <Title>Office downtown</Title>
      <TransactionType>For Rent</TransactionType>
      <Details>
        <PropertyType>Commercial / Office</PropertyType>
        <RentalPrice>12000</RentalPrice>
        <LivingArea>150</LivingArea>
      </Details>
      <Media>
        <Item medium="image">https://cdn.test/l1.jpg</Item>
      </Media>
    </Listing>
  </Listings>
</ListingDataFeed>
"""


class XmlFeedTest(unittest.TestCase):
    def test_parses_union_feed(self):
        records = parse_xml_feed(UNION_FEED)
        self.assertEqual(len(records), 2)
        first = records[0]
        self.assertEqual(first["reference"], "AP-001")
        self.assertEqual(first["title"], "Apartamento em Moema")
        self.assertEqual(first["property_type"], "Apartamento")
        self.assertEqual(first["sale_price"], "850.000,00")
        self.assertEqual(first["bedrooms"], "3")
        self.assertEqual(first["city"], "São Paulo")
        self.assertEqual(first["description"], "Lindo apartamento")
        self.assertEqual(first["images"], ["https://cdn.test/a1.jpg", "https://cdn.test/a2.jpg"])
        self.assertEqual(first["cover_image_url"], "https://cdn.test/a2.jpg")
        self.assertEqual(records[1]["rental_price"], "7500")
        self.assertNotIn("images", records[1])

    def test_parses_english_listing_feed(self):
        records = parse_xml_feed(LISTINGS_FEED)
        self.assertEqual(len(records), 1)
        record = records[0]
        self.assertEqual(record["reference"], "L-77")
        self.assertEqual(record["transaction_type"], "For Rent")
        self.assertEqual(record["property_type"], "Commercial / Office")
        self.assertEqual(record["rental_price"], "12000")
        self.assertEqual(record["area_sqm"], "150")
        self.assertEqual(record["cover_image_url"], "https://cdn.test/l1.jpg")

    def test_malformed_xml_is_fatal(self):
        with self.assertRaises(FeedError) as ctx:
            parse_xml_feed(b"<Imoveis><Imovel></Imoveis>")
        self.assertEqual(ctx.exception.error_type, PARSE_ERROR)

    def test_feed_without_listings(self):
        self.assertEqual(parse_xml_feed(b"<Imoveis></Imoveis>"), [])

    def test_clean_description(self):
        self.assertEqual(clean_description("Texto simples "), "Texto simples")
        self.assertEqual(clean_description("<p>Um</p><p>Dois</p>"), "Um Dois")


if __name__ == "__main__":
    unittest.main()
