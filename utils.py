MAX_NAME_LENGTH = 95  # Discord caps channel names at 100


def format_usd(price):
    """Pick the decimal precision from the magnitude of the price."""
    if price >= 1:
        return f"{price:,.2f}"
    if price >= 0.01:
        return f"{price:.4f}"
    return f"{price:.6f}"


def channel_name(label, price):
    return f"{label} - ${format_usd(price)}"[:MAX_NAME_LENGTH]


def normalize_coin(coin):
    return coin.strip().lower()
