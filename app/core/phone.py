import re
from dataclasses import dataclass, field

from .config import Settings, get_settings


@dataclass(frozen=True)
class NumberingPlan:
    calling_code: str = "255"
    subscriber_length: int = 9
    mobile_prefixes: tuple[str, ...] = ("6", "7")
    _pattern: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.mobile_prefixes:
            raise ValueError("numbering plan needs at least one mobile prefix")
        prefixes = "|".join(re.escape(prefix) for prefix in sorted(self.mobile_prefixes, key=len, reverse=True))
        # Every prefix must leave room for at least one trailing digit.
        alternatives = "|".join(
            f"{re.escape(prefix)}[0-9]{{{self.subscriber_length - len(prefix)}}}"
            for prefix in self.mobile_prefixes
            if len(prefix) < self.subscriber_length
        )
        if not alternatives:
            raise ValueError(f"mobile prefixes {prefixes} are longer than the subscriber number")
        pattern = re.compile(rf"^\+{re.escape(self.calling_code)}(?:{alternatives})$")
        object.__setattr__(self, "_pattern", pattern)

    @classmethod
    def from_settings(cls, settings: Settings) -> "NumberingPlan":
        return cls(
            calling_code=settings.PHONE_CALLING_CODE,
            subscriber_length=settings.PHONE_SUBSCRIBER_LENGTH,
            mobile_prefixes=tuple(settings.mobile_prefixes),
        )

    @property
    def example(self) -> str:
        prefix = self.mobile_prefixes[0]
        return f"+{self.calling_code}{prefix}{'X' * (self.subscriber_length - len(prefix))}"

    def validate(self, phone: str) -> bool:
        if not isinstance(phone, str):
            return False
        return self._pattern.fullmatch(phone) is not None


class PhoneValidator:
    """Checks recipients against the configured regional E.164 plan."""

    def __init__(self, plan: NumberingPlan | None = None):
        self.plan = plan or NumberingPlan.from_settings(get_settings())

    def validate(self, phone: str) -> bool:
        return self.plan.validate(phone)


def mask_phone(phone: str, visible_digits: int = 3) -> str:
    if not phone:
        return ""
    text = str(phone).strip()
    if len(text) <= visible_digits:
        return text
    return "*" * (len(text) - visible_digits) + text[-visible_digits:]


def to_msisdn(phone: str) -> str:
    """E.164 number without the leading plus, as local gateways expect it."""

    return phone.strip().lstrip("+")
