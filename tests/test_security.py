from collections import Counter

from app.core.security import codes_match, generate_otp_code

SAMPLES = 10_000
# Chi-square critical value for 9 degrees of freedom at p = 0.001.
CHI_SQUARE_CRITICAL_9_DOF = 27.877


def _chi_square(counts: Counter, buckets: int, total: int) -> float:
    expected = total / buckets
    return sum((counts.get(bucket, 0) - expected) ** 2 / expected for bucket in range(buckets))


def test_codes_are_six_zero_padded_digits():
    for _ in range(1_000):
        code = generate_otp_code(6)
        assert len(code) == 6
        assert code.isdigit()


def test_codes_span_the_full_range_without_bias():
    values = [int(generate_otp_code(6)) for _ in range(SAMPLES)]

    assert min(values) < 100_000  # leading zeros are produced
    assert max(values) >= 900_000
    assert len(set(values)) > SAMPLES * 0.99

    leading = Counter(value // 100_000 for value in values)
    trailing = Counter(value % 10 for value in values)
    assert _chi_square(leading, 10, SAMPLES) < CHI_SQUARE_CRITICAL_9_DOF
    assert _chi_square(trailing, 10, SAMPLES) < CHI_SQUARE_CRITICAL_9_DOF


def test_length_follows_argument():
    assert len(generate_otp_code(4)) == 4
    assert len(generate_otp_code(8)) == 8


def test_codes_match_compares_exactly():
    assert codes_match("012345", "012345")
    assert not codes_match("012345", "12345")
    assert not codes_match("012346", "012345")
