"""
Property feed import: XML and spreadsheet parsing, normalization, and the
import run that writes properties, owners and broker roles.
"""
