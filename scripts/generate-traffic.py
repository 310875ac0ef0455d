#!/usr/bin/env python3
"""
Traffic generator for the storefront service
Simulates shoppers browsing quick picks, filling and emptying carts, and placing COD orders
"""

import requests
import random
import time
import threading
from collections import Counter
from datetime import datetime

API_URL = "http://localhost:8000"

PINCODES = ["110001", "122001", "400001", "560001", "999999"]

# Weight for actions
ACTION_WEIGHTS = {
    "browse": 0.35,
    "add_to_cart": 0.3,
    "update_cart": 0.1,
    "remove_from_cart": 0.1,
    "check_pincode": 0.1,
    "cod_order": 0.05,
}

outcomes = Counter()
outcomes_lock = threading.Lock()


def record(outcome):
    with outcomes_lock:
        outcomes[outcome] += 1


def log(message):
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] {message}")


class Shopper:
    def __init__(self, user_id):
        self.user_id = user_id
        self.products = []
        self.cart_item_ids = []

    def fetch_quick_picks(self):
        try:
            response = requests.get(f"{API_URL}/products/quick-picks", params={"limit": 10}, timeout=5)
            if response.status_code == 200:
                self.products = response.json().get("products", [])
                log(f"{self.user_id}: Fetched {len(self.products)} quick picks")
                record("quick_picks")
                return True
        except Exception as e:
            log(f"{self.user_id}: Failed to fetch quick picks - {e}")
        record("error")
        return False

    def browse_products(self):
        if not self.products:
            self.fetch_quick_picks()

        if self.products:
            product = random.choice(self.products)
            try:
                response = requests.get(f"{API_URL}/products/{product['id']}", timeout=5)
                if response.status_code == 200:
                    log(f"{self.user_id}: Browsing {product['name']}")
                    record("browse")
                    return True
            except Exception as e:
                log(f"{self.user_id}: Failed to browse product - {e}")
        record("error")
        return False

    def add_to_cart(self):
        if not self.products:
            self.fetch_quick_picks()

        if self.products:
            product = random.choice(self.products)
            try:
                response = requests.post(
                    f"{API_URL}/cart/add",
                    json={
                        "user_id": self.user_id,
                        "product_id": product["id"],
                        "quantity": random.randint(1, 3)
                    },
                    timeout=5
                )
                if response.status_code in (200, 201):
                    cart_item = response.json()["cartItem"]
                    if cart_item["id"] not in self.cart_item_ids:
                        self.cart_item_ids.append(cart_item["id"])
                    log(f"{self.user_id}: Added {product['name']} to cart")
                    record("add_to_cart")
                    return True
                elif response.status_code == 400:
                    # Lost the race for the last units, or the product sold out
                    log(f"{self.user_id}: Add to cart rejected - {response.json().get('error')}")
                    record("insufficient_stock")
                else:
                    log(f"{self.user_id}: Failed to add to cart - {response.status_code}")
                    record("error")
            except Exception as e:
                log(f"{self.user_id}: Failed to add to cart - {e}")
                record("error")
        return False

    def update_cart(self):
        if not self.cart_item_ids:
            return self.add_to_cart()

        cart_item_id = random.choice(self.cart_item_ids)
        try:
            response = requests.put(
                f"{API_URL}/cart/{cart_item_id}",
                json={"quantity": random.randint(1, 4)},
                timeout=5
            )
            if response.status_code == 200:
                log(f"{self.user_id}: Updated cart item {cart_item_id}")
                record("update_cart")
                return True
            record("insufficient_stock" if response.status_code == 400 else "error")
        except Exception as e:
            log(f"{self.user_id}: Failed to update cart - {e}")
            record("error")
        return False

    def remove_from_cart(self):
        if not self.cart_item_ids:
            return False

        cart_item_id = self.cart_item_ids.pop(random.randrange(len(self.cart_item_ids)))
        try:
            response = requests.delete(f"{API_URL}/cart/{cart_item_id}", timeout=5)
            if response.status_code == 200:
                log(f"{self.user_id}: Removed cart item {cart_item_id}")
                record("remove_from_cart")
                return True
        except Exception as e:
            log(f"{self.user_id}: Failed to remove cart item - {e}")
        record("error")
        return False

    def clear_cart(self):
        try:
            response = requests.delete(f"{API_URL}/cart/clear/{self.user_id}", timeout=5)
            if response.status_code == 200:
                data = response.json()
                self.cart_item_ids = []
                log(f"{self.user_id}: Cleared cart, {len(data.get('restored', []))} items restored")
                record("clear_cart")
                return True
        except Exception as e:
            log(f"{self.user_id}: Failed to clear cart - {e}")
        record("error")
        return False

    def check_pincode(self):
        pincode = random.choice(PINCODES)
        try:
            response = requests.post(
                f"{API_URL}/zones/validate-pincode",
                json={"pincode": pincode},
                timeout=5
            )
            if response.status_code == 200:
                deliverable = response.json()["data"]["is_deliverable"]
                log(f"{self.user_id}: Pincode {pincode} deliverable={deliverable}")
                record("check_pincode")
                return True
        except Exception as e:
            log(f"{self.user_id}: Failed to check pincode - {e}")
        record("error")
        return False

    def place_cod_order(self):
        if not self.products:
            self.fetch_quick_picks()
        if not self.products:
            return False

        product = random.choice(self.products)
        quantity = random.randint(1, 3)
        try:
            response = requests.post(
                f"{API_URL}/cod-orders/create",
                json={
                    "user_id": self.user_id,
                    "product_id": product["id"],
                    "user_name": f"Shopper {self.user_id}",
                    "product_name": product["name"],
                    "product_total_price": product["price"] * quantity,
                    "user_address": "12 MG Road",
                    "user_location": {"pincode": random.choice(PINCODES)},
                    "quantity": quantity
                },
                timeout=10
            )
            if response.status_code == 200:
                order = response.json()["cod_order"]
                log(f"{self.user_id}: COD order {order['id']} placed")
                record("cod_order")
                return True
            elif response.status_code == 400:
                # Below the COD minimum
                record("cod_rejected")
            else:
                record("error")
        except Exception as e:
            log(f"{self.user_id}: Failed to place COD order - {e}")
            record("error")
        return False

    def random_action(self):
        action = random.choices(
            list(ACTION_WEIGHTS.keys()),
            weights=list(ACTION_WEIGHTS.values())
        )[0]

        if action == "browse":
            return self.browse_products()
        elif action == "add_to_cart":
            return self.add_to_cart()
        elif action == "update_cart":
            return self.update_cart()
        elif action == "remove_from_cart":
            return self.remove_from_cart()
        elif action == "check_pincode":
            return self.check_pincode()
        elif action == "cod_order":
            return self.place_cod_order()


def shopper_session(user_id, duration_seconds):
    """Simulate one shopper, who empties their cart at the end so stock is returned."""
    shopper = Shopper(user_id)
    end_time = time.time() + duration_seconds

    shopper.fetch_quick_picks()
    while time.time() < end_time:
        shopper.random_action()
        time.sleep(random.uniform(0.3, 1.2))

    shopper.clear_cart()


def report():
    with outcomes_lock:
        summary = ", ".join(f"{name}={count}" for name, count in sorted(outcomes.items()))
    log(f"Outcomes: {summary or 'none yet'}")


def generate_traffic(num_concurrent_users=5, session_duration=60):
    """Generate traffic with multiple concurrent shoppers"""
    log(f"Starting traffic generation with {num_concurrent_users} concurrent shoppers")
    log(f"Session duration: {session_duration} seconds")

    threads = []
    last_report = time.time()

    try:
        while True:
            while len([t for t in threads if t.is_alive()]) < num_concurrent_users:
                user_id = f"user_{random.randint(1000, 9999)}"
                thread = threading.Thread(target=shopper_session, args=(user_id, session_duration))
                thread.start()
                threads.append(thread)
                time.sleep(random.uniform(0.5, 2))

            threads = [t for t in threads if t.is_alive()]
            if time.time() - last_report >= 30:
                report()
                last_report = time.time()
            time.sleep(5)

    except KeyboardInterrupt:
        log("\nStopping traffic generation...")
        log("Waiting for active sessions to complete...")
        for thread in threads:
            thread.join(timeout=10)
        report()
        log("Traffic generation stopped")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate traffic for the storefront service")
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
    log("Storefront Traffic Generator")
    log("=" * 60)
    log(f"API URL: {API_URL}")
    log(f"Concurrent Shoppers: {args.users}")
    log(f"Session Duration: {args.duration}s")
    log("=" * 60)

    generate_traffic(args.users, args.duration)
