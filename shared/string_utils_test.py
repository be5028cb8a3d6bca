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

from shared import string_utils


class StringUtilsTest(unittest.TestCase):

    def test_generate_slug(self):
        self.assertEqual(string_utils.generate_slug("Imobiliária São José"), "imobiliaria-sao-jose")
        self.assertEqual(string_utils.generate_slug("  Casa & Cia!! "), "casa-cia")
        slug = string_utils.generate_slug("a" * 49 + " b")
        self.assertLessEqual(len(slug), string_utils.MAX_SLUG_LENGTH)
        self.assertFalse(slug.endswith("-"))

    def test_normalize_slug(self):
        self.assertEqual(string_utils.normalize_slug("Casa--Nova_SP"), "casa-nova-sp")

    def test_normalize_header(self):
        self.assertEqual(string_utils.normalize_header("Preço Venda"), "preco_venda")
        self.assertEqual(string_utils.normalize_header(" Referência "), "referencia")
        self.assertEqual(string_utils.normalize_header(None), "")

    def test_masks(self):
        """Tests the masking shown to owners on the confirmation page."""
        self.assertEqual(string_utils.mask_name("João  Silva Santos"), "João S.")
        self.assertEqual(string_utils.mask_name("Maria"), "Maria")
        self.assertEqual(string_utils.mask_name(""), "")
        self.assertEqual(string_utils.mask_email("joao@example.com"), "j***@example.com")
        self.assertEqual(string_utils.mask_email("sem-email"), "")
        self.assertEqual(string_utils.mask_phone("+55 11 98765-1234"), "(11) 9****-1234")
        self.assertEqual(string_utils.mask_phone("1234"), "")


if __name__ == "__main__":
    unittest.main()
