from locust import HttpUser, task, between
import random

class DinerUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Sign up and fetch a token for this simulated diner
        self.email = f"diner_{random.randint(1, 1_000_000)}@load.test"
        self.client.post("/users", json={"name": "Diner", "email": self.email})
        r = self.client.post("/jwt", json={"email": self.email})
        self.headers = {"Authorization": f"Bearer {r.json()['token']}"} if r.status_code == 200 else {}
        menu = self.client.get("/menu")
        self.menu = menu.json() if menu.status_code == 200 else []

    @task(5)
    def browse_menu(self):
        self.client.get("/menu")

    @task(3)
    def checkout(self):
        if not self.menu:
            return
        picks = random.sample(self.menu, k=min(2, len(self.menu)))
        cart_ids = []
        for item in picks:
            r = self.client.post("/carts", json={"email": self.email, "menuItemId": item["id"], "name": item["name"], "price": item["price"]})
            if r.status_code == 200:
                cart_ids.append(r.json()["insertedId"])
        price = round(sum(item["price"] for item in picks), 2)
        self.client.post("/create-payment-intent", json={"price": price})
        self.client.post("/payment", json={
            "email": self.email,
            "price": price,
            "cartIds": cart_ids,
            "menuItemIds": [item["id"] for item in picks],
        })

    @task(1)
    def payment_history(self):
        self.client.get(f"/payment/{self.email}", headers=self.headers, name="/payment/[email]")
