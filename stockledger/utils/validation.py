from stockledger.services.exceptions import ValidationError


def coerce_enum(enum_cls, value, field_name: str):
    """Parse a raw value into `enum_cls`, naming the field when it is not a member."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(field_name, f"invalid value {value!r}; expected one of {allowed}")
