"""Seeded shuffle so every client sees multiple-choice options in one order."""


def _hash_seed(seed: str) -> int:
    value = 0
    for ch in seed:
        value = ((value << 5) - value + ord(ch)) & 0xFFFFFFFF
    # Reinterpret as signed 32-bit
    if value & 0x80000000:
        value -= 0x100000000
    return value


def _next_state(state: int) -> int:
    return (state * 1103515245 + 12345) & 0x7FFFFFFF


def shuffle_with_seed(items, seed: str) -> list:
    """Fisher-Yates shuffle driven by an LCG; same seed, same order."""
    result = list(items)
    if len(result) <= 1:
        return result
    state = _hash_seed(seed)
    for i in range(len(result) - 1, 0, -1):
        state = _next_state(state)
        j = int(state / 0x7FFFFFFF * (i + 1))
        j = min(j, i)
        result[i], result[j] = result[j], result[i]
    return result


def build_mc_options(correct_name: str, wrong_options, seed: str) -> list:
    return shuffle_with_seed([correct_name, *wrong_options], seed)
