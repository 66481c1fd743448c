#!/usr/bin/env python3
"""
Traffic generator for the TestStore demo
Simulates shoppers browsing the catalog, searching, placing and cancelling orders
"""

import requests
import random
import time
import threading
from datetime import datetime

API_URL = "http://localhost:8000"

DEMO_ACCOUNTS = [
    {"email": "user@test.com", "password": "User123!"},
    {"email": "admin@test.com", "password": "Admin123!"},
]

SEARCH_TERMS = ["laptop", "mouse", "book", "coffee", "mat", "desk", "vitamin", "blocks", "unicorn"]

ADDRESSES = [
    "1 Infinite Loop, Cupertino",
    "221B Baker Street, London",
    "742 Evergreen Terrace, Springfield",
]

# Weight for actions
ACTION_WEIGHTS = {
    "browse": 0.35,
    "search": 0.2,
    "place_order": 0.2,
    "view_orders": 0.15,
    "cancel_order": 0.1,
}


def get_headers(token):
    return {"Authorization": f"Bearer {token}"}


def log(message):
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] {message}")


class Shopper:
    def __init__(self, shopper_id, is_authenticated=True):
        self.shopper_id = shopper_id
        self.is_authenticated = is_authenticated
        self.token = None  # Set after login
        self.products = []
        self.order_ids = []

    def authenticate(self):
        """Log in with one of the demo accounts."""
        if not self.is_authenticated:
            log(f"Shopper {self.shopper_id}: Anonymous (browsing only)")
            return False

        cred = dict(random.choice(DEMO_ACCOUNTS))

        # Simulate authentication failures (~1%)
        if random.random() < 0.01:
            cred["password"] = "wrong_password"

        try:
            response = requests.post(f"{API_URL}/api/auth/login", json=cred, timeout=5)
            if response.status_code == 200:
                self.token = response.json()["token"]
                log(f"Shopper {self.shopper_id}: Logged in as {cred['email']}")
                return True
            log(f"Shopper {self.shopper_id}: Login failed - {response.status_code}")
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Login error - {e}")

        self.is_authenticated = False
        return False

    def fetch_products(self):
        try:
            response = requests.get(f"{API_URL}/api/products", timeout=5)
            if response.status_code == 200:
                self.products = response.json()
                log(f"Shopper {self.shopper_id}: Fetched {len(self.products)} products")
                return True
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Failed to fetch products - {e}")
        return False

    def browse_products(self):
        if not self.products:
            self.fetch_products()

        if self.products:
            product = random.choice(self.products)
            try:
                response = requests.get(f"{API_URL}/api/products/{product['id']}", timeout=5)
                if response.status_code == 200:
                    log(f"Shopper {self.shopper_id}: Browsing {product['name']}")
                    return True
            except requests.RequestException as e:
                log(f"Shopper {self.shopper_id}: Failed to browse product - {e}")
        return False

    def search(self):
        term = random.choice(SEARCH_TERMS)
        try:
            response = requests.get(f"{API_URL}/api/products/search", params={"q": term}, timeout=5)
            if response.status_code == 200:
                log(f"Shopper {self.shopper_id}: Search '{term}' returned {len(response.json())} products")
                return True
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Search failed - {e}")
        return False

    def place_order(self):
        if not self.products:
            self.fetch_products()
        if not self.products or not self.token:
            return False

        lines = random.sample(self.products, k=min(len(self.products), random.randint(1, 3)))
        try:
            response = requests.post(
                f"{API_URL}/api/orders",
                json={
                    "items": [{"productId": p["id"], "quantity": random.randint(1, 3)} for p in lines],
                    "shippingAddress": random.choice(ADDRESSES),
                },
                headers=get_headers(self.token),
                timeout=10
            )
            if response.status_code == 201:
                order = response.json()
                self.order_ids.append(order["id"])
                log(f"Shopper {self.shopper_id}: Order {order['id']} placed - ${order['totalAmount']:.2f}")
                return True
            log(f"Shopper {self.shopper_id}: Order rejected - {response.status_code} {response.json().get('message')}")
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Order failed - {e}")
        return False

    def cancel_order(self):
        if not self.order_ids or not self.token:
            return False

        order_id = self.order_ids.pop(random.randrange(len(self.order_ids)))
        try:
            response = requests.post(
                f"{API_URL}/api/orders/{order_id}/cancel",
                headers=get_headers(self.token),
                timeout=5
            )
            if response.status_code == 200:
                log(f"Shopper {self.shopper_id}: Cancelled order {order_id}")
                return True
            log(f"Shopper {self.shopper_id}: Cancel rejected - {response.status_code}")
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Cancel failed - {e}")
        return False

    def view_orders(self):
        if not self.token:
            return False
        try:
            response = requests.get(f"{API_URL}/api/orders", headers=get_headers(self.token), timeout=5)
            if response.status_code == 200:
                log(f"Shopper {self.shopper_id}: Viewing {len(response.json())} orders")
                return True
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Failed to view orders - {e}")
        return False

    def random_action(self):
        action = random.choices(
            list(ACTION_WEIGHTS.keys()),
            weights=list(ACTION_WEIGHTS.values())
        )[0]

        if action == "browse":
            return self.browse_products()
        elif action == "search":
            return self.search()
        elif action == "place_order":
            return self.place_order()
        elif action == "view_orders":
            return self.view_orders()
        elif action == "cancel_order":
            return self.cancel_order()


def shopper_session(shopper_id, duration_seconds, shopper_type="browser"):
    """
    Simulate a shopper session

    shopper_type:
    - "browser": Browses and searches anonymously (60%)
    - "buyer": Logs in, places orders and sometimes cancels them (40%)
    """
    shopper = Shopper(shopper_id, is_authenticated=(shopper_type == "buyer"))
    end_time = time.time() + duration_seconds

    shopper.fetch_products()
    for _ in range(random.randint(2, 5)):
        shopper.browse_products()
        time.sleep(random.uniform(0.5, 1.5))

    if shopper_type == "buyer" and shopper.authenticate():
        while time.time() < end_time:
            shopper.random_action()
            time.sleep(random.uniform(0.5, 1.5))
        return

    while time.time() < end_time:
        if random.random() < 0.3:
            shopper.search()
        else:
            shopper.browse_products()
        time.sleep(random.uniform(0.3, 0.8))


def generate_traffic(num_concurrent_shoppers=5, session_duration=60):
    """Generate traffic with multiple concurrent shoppers"""
    log(f"Starting traffic generation with {num_concurrent_shoppers} concurrent shoppers")
    log(f"Session duration: {session_duration} seconds")
    log("Shopper mix: 60% browsers, 40% buyers")

    threads = []

    try:
        while True:
            while len([t for t in threads if t.is_alive()]) < num_concurrent_shoppers:
                shopper_id = f"shopper_{random.randint(1000, 9999)}"
                shopper_type = "browser" if random.random() < 0.6 else "buyer"

                thread = threading.Thread(
                    target=shopper_session,
                    args=(shopper_id, session_duration, shopper_type)
                )
                thread.start()
                threads.append(thread)

                time.sleep(random.uniform(1, 3))

            threads = [t for t in threads if t.is_alive()]
            time.sleep(5)

    except KeyboardInterrupt:
        log("Stopping traffic generation...")
        log("Waiting for active sessions to complete...")
        for thread in threads:
            thread.join(timeout=10)
        log("Traffic generation stopped")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate traffic for TestStore")
    parser.add_argument(
        "--users",
        type=int,
        default=5,
        help="Number of concurrent shoppers (default: 5)"
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=60,
        help="Session duration in seconds (default: 60)"
    )
    parser.add_argument(
        "--url",
        type=str,
        default="http://localhost:8000",
        help="API URL (default: http://localhost:8000)"
    )

    args = parser.parse_args()
    API_URL = args.url

    log("=" * 60)
    log("TestStore Traffic Generator")
    log("=" * 60)
    log(f"API URL: {API_URL}")
    log(f"Concurrent Shoppers: {args.users}")
    log(f"Session Duration: {args.duration}s")
    log("=" * 60)

    generate_traffic(args.users, args.duration)
