import unittest
from datetime import date, datetime

from fx_daily.exceptions import ValidationError
from fx_daily.utils.currency import normalise_currency_code
from fx_daily.utils.date_range import iter_days, parse_date, validate_window


class DateHelperTests(unittest.TestCase):
    def test_iter_days_crosses_leap_day(self) -> None:
        days = list(iter_days(date(2024, 2, 27), date(2024, 3, 1)))
        self.assertEqual(
            days,
            [date(2024, 2, 27), date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)],
        )

    def test_iter_days_empty_when_reversed(self) -> None:
        self.assertEqual(list(iter_days(date(2024, 1, 2), date(2024, 1, 1))), [])

    def test_parse_date(self) -> None:
        self.assertEqual(parse_date("2024-02-29"), date(2024, 2, 29))
        self.assertEqual(parse_date(datetime(2024, 1, 1, 12, 30)), date(2024, 1, 1))
        self.assertEqual(parse_date(date(2024, 1, 1)), date(2024, 1, 1))
        with self.assertRaises(ValidationError):
            parse_date("2023-02-29")
        with self.assertRaises(ValueError):
            parse_date("01/02/2024")

    def test_validate_window(self) -> None:
        validate_window(date(2024, 1, 1), date(2024, 1, 1))
        validate_window(None, date(2024, 1, 1))
        with self.assertRaises(ValidationError):
            validate_window(date(2024, 1, 2), date(2024, 1, 1))


class CurrencyCodeTests(unittest.TestCase):
    def test_normalise_currency_code(self) -> None:
        self.assertEqual(normalise_currency_code(" eur "), "EUR")
        for bad in ("EURO", "E1R", "", "US"):
            with self.assertRaises(ValidationError):
                normalise_currency_code(bad)


if __name__ == "__main__":
    unittest.main()
