import asyncio

from sdk.posclient import PosClient

PASSWORD = "Demo#Pass1"


async def simulate_sale(client, name, product_id, qty):
    try:
        resp = await client.create_sale_async([(product_id, qty)], "cash")
    except Exception as e:
        print(f"❌ {name} unexpected failure: {e}")
        return

    body = resp.json()
    if resp.status_code == 201:
        sale = body["sale"]
        print(f"✅ {name} sold {qty} units (Sale ID: {sale['id']}, Total: {sale['total']})")
    elif resp.status_code == 400:
        print(f"❌ {name} sale rejected: {body.get('message')}")
    else:
        print(f"⚠️  {name} unexpected response {resp.status_code}: {body}")


async def main():
    base_url = "http://127.0.0.1:8085"
    admin = PosClient(base_url=base_url)

    # Reset ledger if the server allows it
    try:
        admin.reset()
    except Exception:
        pass

    admin.register("Ada Admin", "ada@pos.io", PASSWORD)
    admin.login("ada@pos.io", PASSWORD)
    product = admin.create_product("Gaming Laptop", 5000, 2, "electronics")["product"]
    print(f"\n🖥️  Registered product: {product}")

    sellers = []
    for name, email in (("Alice", "alice@shop.com"), ("Bob", "bob@shop.com")):
        client = PosClient(base_url=base_url)
        client.register(name, email, PASSWORD)
        client.login(email, PASSWORD)
        sellers.append((name, client))

    # Both sellers try to sell the last two units at once
    print("\n⚡ Simulating concurrent sales...")
    await asyncio.gather(*[
        simulate_sale(client, name, product["id"], 2) for name, client in sellers
    ])

    print("\n📦 Final product state:", admin.get_product(product["id"]))
    print("🧾 Sales:", admin.list_sales())


if __name__ == "__main__":
    asyncio.run(main())
