#!/usr/bin/env python
from sdk.posclient import PosClient

PASSWORD = "Demo#Pass1"


def main():
    admin = PosClient(base_url="http://127.0.0.1:8085")
    seller = PosClient(base_url="http://127.0.0.1:8085")

    # -----------------------------
    # Reset everything for demo (server needs POS_ENABLE_RESET=true)
    # -----------------------------
    print("Resetting ledger...")
    print(admin.reset())

    # -----------------------------
    # Accounts
    # -----------------------------
    print("\nRegistering an admin and a seller...")
    print(admin.register("Ada Admin", "ada@pos.io", PASSWORD))
    print(seller.register("Sam Seller", "sam@shop.com", PASSWORD))
    admin.login("ada@pos.io", PASSWORD)
    seller.login("sam@shop.com", PASSWORD)

    # -----------------------------
    # Catalog
    # -----------------------------
    print("\nRegistering products...")
    coffee = admin.create_product("Coffee", 10, 20, "drinks")["product"]
    milk = admin.create_product("Milk", 2.5, 6, "dairy")["product"]
    print(admin.list_products())

    # -----------------------------
    # Sale: 3 coffees at 10 -> total 30, stock 17
    # -----------------------------
    print("\nSelling 3 x Coffee...")
    r = seller.create_sale([(coffee["id"], 3)], "cash")
    print(r.status_code, r.json())
    sale_id = r.json()["sale"]["id"]
    print("Coffee stock:", admin.get_product(coffee["id"])["stock"])

    # -----------------------------
    # Identical resubmission inside the window is rejected
    # -----------------------------
    print("\nResubmitting the same basket...")
    r = seller.create_sale([(coffee["id"], 3)], "cash")
    print(r.status_code, r.json())

    # -----------------------------
    # Low-stock alert
    # -----------------------------
    print("\nSelling 2 x Milk (stock drops to 4)...")
    r = seller.create_sale([(milk["id"], 2)], "card")
    print(r.status_code, r.json().get("alerts"))

    # -----------------------------
    # Admin corrections
    # -----------------------------
    print("\nChanging the coffee sale to 1 unit paid by transfer...")
    print(admin.update_sale(sale_id, items=[(coffee["id"], 1)], payment_method="transfer"))
    print("Coffee stock:", admin.get_product(coffee["id"])["stock"])

    print("\nDeleting the coffee sale...")
    print(admin.delete_sale(sale_id))
    print("Coffee stock:", admin.get_product(coffee["id"])["stock"])

    # -----------------------------
    # Listing
    # -----------------------------
    print("\nListing sales...")
    print(seller.list_sales())


if __name__ == "__main__":
    main()
