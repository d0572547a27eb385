class WeightConverter:
    """Convert stored pound values for display in the configured unit."""

    KG_TO_LB = 2.20462
    UNITS = ("lb", "kg")

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg * WeightConverter.KG_TO_LB, 2)

    @staticmethod
    def lb_to_kg(lb: float) -> float:
        return round(lb / WeightConverter.KG_TO_LB, 2)

    @classmethod
    def from_pounds(cls, lb: float, unit: str) -> float:
        """Return ``lb`` expressed in ``unit``."""
        if unit not in cls.UNITS:
            raise ValueError(f"unsupported unit: {unit}")
        return lb if unit == "lb" else cls.lb_to_kg(lb)

    @classmethod
    def to_pounds(cls, value: float, unit: str) -> float:
        """Return ``value`` given in ``unit`` as pounds."""
        if unit not in cls.UNITS:
            raise ValueError(f"unsupported unit: {unit}")
        return value if unit == "lb" else cls.kg_to_lb(value)

    @staticmethod
    def unit_label(unit: str) -> str:
        return "kg" if unit == "kg" else "lbs"
