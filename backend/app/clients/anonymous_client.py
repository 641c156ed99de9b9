# app/clients/anonymous_client.py

import argparse
import random
import time

import requests

# =========================
# CONFIGURATION
# =========================

TOR_PROXY = {
    'http': 'socks5h://127.0.0.1:9050',
    'https': 'socks5h://127.0.0.1:9050'
}

SERVER_URL = "http://127.0.0.1:8000"  # change to .onion for Tor backend
MIN_DELAY_MS = 100                     # minimum random delay
MAX_DELAY_MS = 2000                    # maximum random delay
REQUEST_TIMEOUT = 15


class DropClientError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


# =========================
# TOR SESSION
# =========================

def create_tor_session():
    """Create a requests session that routes through Tor"""
    session = requests.Session()
    session.proxies = TOR_PROXY
    return session


def random_delay(min_ms=MIN_DELAY_MS, max_ms=MAX_DELAY_MS):
    """Random delay to prevent timing analysis"""
    time.sleep(random.uniform(min_ms / 1000, max_ms / 1000))


# =========================
# ANON DROP CLIENT
# =========================

class AnonDropClient:
    def __init__(self, server_url=SERVER_URL, use_tor=False, enable_delays=False, session=None):
        self.server_url = server_url.rstrip("/")
        self.enable_delays = enable_delays
        if session is None:
            session = create_tor_session() if use_tor else requests.Session()
        self.session = session

    def _check(self, resp):
        if resp.status_code >= 400:
            try:
                message = resp.json().get("error", resp.text)
            except ValueError:
                message = resp.text
            raise DropClientError(resp.status_code, message)
        return resp.json()

    def send(self, recipient_code: str, message: str, sender_name: str | None = None) -> dict:
        """Drop a message into `recipient_code`'s inbox"""
        if self.enable_delays:
            random_delay()

        body = {"recipientAnonCode": recipient_code, "messageContent": message}
        if sender_name:
            body["senderName"] = sender_name

        resp = self.session.post(f"{self.server_url}/messages", json=body, timeout=REQUEST_TIMEOUT)
        return self._check(resp)

    def fetch(self, anon_code: str) -> list[dict]:
        """Read every live message addressed to `anon_code`, newest first"""
        if self.enable_delays:
            random_delay()

        resp = self.session.get(
            f"{self.server_url}/messages",
            params={"anonCode": anon_code},
            timeout=REQUEST_TIMEOUT,
        )
        return self._check(resp)["messages"]


# =========================
# COMMAND LINE
# =========================

def main(argv=None):
    parser = argparse.ArgumentParser(description="Anonymous message drop client")
    parser.add_argument("--server", default=SERVER_URL)
    parser.add_argument("--tor", action="store_true", help="route requests through Tor")
    sub = parser.add_subparsers(dest="command", required=True)

    send_p = sub.add_parser("send")
    send_p.add_argument("recipient")
    send_p.add_argument("message")
    send_p.add_argument("--sender")

    fetch_p = sub.add_parser("fetch")
    fetch_p.add_argument("anon_code")

    args = parser.parse_args(argv)
    client = AnonDropClient(args.server, use_tor=args.tor, enable_delays=args.tor)

    try:
        if args.command == "send":
            client.send(args.recipient, args.message, args.sender)
            print(f"✅ Message sent to {args.recipient}")
        else:
            for m in client.fetch(args.anon_code):
                print(f"[{m['createdAt']}] {m['senderName']}: {m['messageText']}")
    except DropClientError as e:
        print(f"❌ {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
