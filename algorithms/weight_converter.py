from errors import InvalidArgument


class WeightConverter:
    """Utility for converting between kg and lbs.

    Weights are always stored in kilograms; every value shown to or read from
    the user passes through :meth:`to_display` or :meth:`to_kg`.
    """

    KG_TO_LB = 2.20462
    UNITS = ("kg", "lbs")

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return kg * WeightConverter.KG_TO_LB

    @staticmethod
    def lb_to_kg(lb: float) -> float:
        return lb / WeightConverter.KG_TO_LB

    @classmethod
    def check_unit(cls, unit: str) -> str:
        if unit not in cls.UNITS:
            raise InvalidArgument(f"unit must be one of {', '.join(cls.UNITS)}")
        return unit

    @classmethod
    def to_display(cls, kg: float, unit: str) -> float:
        """Return ``kg`` expressed in ``unit``, rounded to one decimal."""
        cls.check_unit(unit)
        value = cls.kg_to_lb(kg) if unit == "lbs" else kg
        return round(value, 1)

    @classmethod
    def to_kg(cls, value: float, unit: str) -> float:
        """Convert a weight entered in ``unit`` to kilograms for storage."""
        cls.check_unit(unit)
        return cls.lb_to_kg(value) if unit == "lbs" else float(value)

    @classmethod
    def format(cls, kg: float, unit: str) -> str:
        return f"{cls.to_display(kg, unit):g} {unit}"
