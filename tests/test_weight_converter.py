import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import WeightConverter
from errors import InvalidArgument


class WeightConverterTest(unittest.TestCase):
    def test_round_trip_within_display_precision(self) -> None:
        for kg in (0.0, 0.5, 20.0, 62.3, 100.0, 142.75, 250.0):
            lb = WeightConverter.kg_to_lb(kg)
            self.assertAlmostEqual(WeightConverter.lb_to_kg(lb), kg, delta=0.1)

    def test_display_rounds_to_one_decimal(self) -> None:
        self.assertEqual(WeightConverter.to_display(100.0, "lbs"), 220.5)
        self.assertEqual(WeightConverter.to_display(82.46, "kg"), 82.5)

    def test_input_in_pounds_is_stored_in_kg(self) -> None:
        self.assertAlmostEqual(WeightConverter.to_kg(220.462, "lbs"), 100.0)
        self.assertEqual(WeightConverter.to_kg(80, "kg"), 80.0)

    def test_display_then_input_does_not_drift(self) -> None:
        kg = 73.0
        shown = WeightConverter.to_display(kg, "lbs")
        self.assertAlmostEqual(WeightConverter.to_kg(shown, "lbs"), kg, delta=0.1)

    def test_unknown_unit(self) -> None:
        with self.assertRaises(InvalidArgument):
            WeightConverter.to_display(10.0, "lb")
        with self.assertRaises(ValueError):
            WeightConverter.to_kg(10.0, "stone")

    def test_format(self) -> None:
        self.assertEqual(WeightConverter.format(100.0, "kg"), "100 kg")
        self.assertEqual(WeightConverter.format(100.0, "lbs"), "220.5 lbs")


if __name__ == "__main__":
    unittest.main()
