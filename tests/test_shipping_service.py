from __future__ import annotations

import unittest

from leather_portal.services.shipping_service import (
    DEFAULT_SHIPPING_TABLE,
    ShippingFeeTable,
    compute_shipping_fee,
    shipping_quote,
)


class ShippingFeeTests(unittest.TestCase):
    def test_documented_country_fees(self) -> None:
        self.assertEqual(compute_shipping_fee('Canada'), 2000)
        self.assertEqual(compute_shipping_fee('Germany'), 2500)
        self.assertEqual(compute_shipping_fee('Japan'), 3000)
        self.assertEqual(compute_shipping_fee('Brazil'), 3500)
        self.assertEqual(compute_shipping_fee('Nigeria'), 4000)
        self.assertEqual(compute_shipping_fee('Australia'), 3000)

    def test_unmapped_country_uses_default_fee(self) -> None:
        self.assertEqual(compute_shipping_fee('Atlantis'), 2800)
        self.assertEqual(compute_shipping_fee(''), 2800)

    def test_fee_is_deterministic(self) -> None:
        self.assertEqual({compute_shipping_fee('France') for _ in range(5)}, {2500})

    def test_surrounding_whitespace_is_ignored(self) -> None:
        self.assertEqual(compute_shipping_fee('  Canada '), 2000)

    def test_table_cannot_be_mutated(self) -> None:
        with self.assertRaises(TypeError):
            DEFAULT_SHIPPING_TABLE.continent_fees['Europe'] = 1  # type: ignore[index]

    def test_custom_table_can_be_injected(self) -> None:
        table = ShippingFeeTable(country_continents={'Iceland': 'Europe'}, continent_fees={'Europe': 999}, default_fee=100)
        self.assertEqual(compute_shipping_fee('Iceland', table), 999)
        self.assertEqual(compute_shipping_fee('Canada', table), 100)

    def test_shipping_quote_formats_amount(self) -> None:
        quote = shipping_quote('United States')
        self.assertEqual(quote['shipping_fee'], 2000)
        self.assertEqual(quote['amount'], '20.00')
        self.assertEqual(quote['continent'], 'North America')
        self.assertEqual(quote['currency'], 'usd')


if __name__ == '__main__':
    unittest.main()
