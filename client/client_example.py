import sys
import requests

# Configuration
BASE_URL = "http://localhost:8000/api/v1"
DEFAULT_SYMBOL = "WBTC"


def print_series_summary(history: dict):
    """Prints the first and last sample of every metric series."""
    for metric, points in history["series"].items():
        if not points:
            print(f"  {metric}: no data")
            continue
        first, last = points[0], points[-1]
        print(f"  {metric}: {len(points)} points, {first[0]} -> {first[2]:.6f}, {last[0]} -> {last[2]:.6f}")


def run_client(symbol: str = DEFAULT_SYMBOL):
    """Runs a series of requests against the token API."""
    session = requests.Session()

    # --- 1. Stored token ---
    print(f"--- Stored token for {symbol} ---")
    try:
        r = session.get(f"{BASE_URL}/tokens/{symbol}")
        r.raise_for_status()
        print("Token:", r.status_code, r.json())
    except requests.exceptions.RequestException as e:
        print(f"Token lookup failed: {e}")
        return

    # --- 2. History at several sampling intervals ---
    for hours in (1, 6, 24):
        print(f"\n--- History for {symbol} every {hours}h ---")
        try:
            r = session.get(f"{BASE_URL}/tokens/{symbol}/data", params={"timeUnit": hours})
            r.raise_for_status()
            print_series_summary(r.json())
        except requests.exceptions.RequestException as e:
            print(f"History query failed: {e}")

    # --- 3. Latest stored hour ---
    print(f"\n--- Latest hour for {symbol} ---")
    try:
        r = session.get(f"{BASE_URL}/tokens/{symbol}/latest")
        r.raise_for_status()
        print("Latest:", r.status_code, r.json())
    except requests.exceptions.RequestException as e:
        print(f"Latest price query failed: {e}")

    # --- 4. Live metadata straight from the subgraph ---
    print(f"\n--- Live metadata for {symbol} ---")
    try:
        r = session.get(f"{BASE_URL}/tokens/{symbol}/remote")
        r.raise_for_status()
        print("Remote:", r.status_code, r.json())
    except requests.exceptions.RequestException as e:
        print(f"Remote metadata failed: {e}")


if __name__ == "__main__":
    run_client(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_SYMBOL)
