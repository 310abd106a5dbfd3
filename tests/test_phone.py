import pytest

from app.core.phone import NumberingPlan, PhoneValidator, mask_phone, to_msisdn


@pytest.fixture()
def validator():
    return PhoneValidator(NumberingPlan())


@pytest.mark.parametrize(
    "phone",
    ["+255712345678", "+255612345678", "+255799999999", "+255600000000"],
)
def test_accepts_tanzanian_mobile_numbers(validator, phone):
    assert validator.validate(phone) is True


@pytest.mark.parametrize(
    "phone",
    [
        "+255512345678",  # prefix outside the mobile set
        "0712345678",  # missing plus and calling code
        "255712345678",  # missing plus
        "+2557123456789",  # too long
        "+25571234567",  # too short
        "+254712345678",  # Kenya
        "+25571234567a",
        "+255 712 345 678",
        "",
        "+255712345678\n",
    ],
)
def test_rejects_everything_else(validator, phone):
    assert validator.validate(phone) is False


def test_rejects_non_strings(validator):
    assert validator.validate(None) is False
    assert validator.validate(255712345678) is False


def test_plan_from_custom_prefixes():
    plan = NumberingPlan(calling_code="254", subscriber_length=9, mobile_prefixes=("7", "11"))
    assert plan.validate("+254712345678")
    assert plan.validate("+254112345678")
    assert not plan.validate("+254212345678")
    assert plan.example == "+2547XXXXXXXX"


def test_plan_requires_prefixes():
    with pytest.raises(ValueError):
        NumberingPlan(mobile_prefixes=())


def test_mask_phone_keeps_last_digits():
    assert mask_phone("+255712345678") == "**********678"
    assert mask_phone("") == ""


def test_to_msisdn_strips_plus():
    assert to_msisdn("+255712345678") == "255712345678"
