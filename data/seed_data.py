"""
Seed script to populate the database with sample bakery data for development.
Generates cakes, orders with line items, and rated comments.
"""
import random
import sys
import uuid
from datetime import datetime, timedelta
from pathlib import Path

# Add backend directory to path to import app modules
backend_path = Path(__file__).parent.parent / "backend"
sys.path.insert(0, str(backend_path))

from app.core.database import get_supabase_client
from app.models.records import OrderStatus

CAKES = {
    "chocolate": ["Chocolate Truffle", "Black Forest", "Double Fudge", "Mocha Layer"],
    "fruit": ["Strawberry Shortcake", "Lemon Drizzle", "Mango Mousse", "Blueberry Cheesecake"],
    "classic": ["Red Velvet", "Vanilla Sponge", "Carrot Cake", "Coffee Walnut"],
    "cupcakes": ["Salted Caramel Cupcake", "Pistachio Cupcake", "Funfetti Cupcake"],
}

DESCRIPTIONS = {
    "chocolate": "Rich, moist chocolate cake layered with ganache.",
    "fruit": "Light sponge with fresh seasonal fruit and cream.",
    "classic": "A bakery favourite, baked fresh every morning.",
    "cupcakes": "Single-serve treat topped with buttercream swirls.",
}

COMMENTS = [
    "Absolutely delicious!",
    "Perfect for our birthday party.",
    "A little too sweet for me.",
    "Would order again.",
    "Beautifully decorated.",
    "Arrived a bit late but tasted great.",
]

ORDER_STATUS_WEIGHTS = {
    OrderStatus.PENDING: 0.15,
    OrderStatus.CONFIRMED: 0.15,
    OrderStatus.SHIPPED: 0.2,
    OrderStatus.DELIVERED: 0.4,
    OrderStatus.CANCELLED: 0.1,
}


def generate_products(client):
    """Insert one product per cake name."""
    products = []
    for category, names in CAKES.items():
        for name in names:
            days_ago = random.randint(0, 180)
            products.append({
                "id": f"cake_{uuid.uuid4().hex[:12]}",
                "product_name": name,
                "description": DESCRIPTIONS[category],
                "category": category,
                "price": round(random.uniform(800.0, 6500.0), 2),
                "qty": random.randint(0, 40),
                "average_rating": 0,
                "ratings_count": 0,
                "created_at": (datetime.now() - timedelta(days=days_ago)).isoformat(),
            })

    try:
        client.table("products").insert(products).execute()
        print(f"[OK] Inserted {len(products)} products")
        return [p["id"] for p in products]
    except Exception as e:
        print(f"[ERROR] Error inserting products: {e}")
        return []


def generate_orders(client, product_ids, num_orders=60):
    """Insert orders with 1-3 line items each."""
    statuses = list(ORDER_STATUS_WEIGHTS)
    weights = list(ORDER_STATUS_WEIGHTS.values())
    inserted = 0

    for _ in range(num_orders):
        order_id = str(uuid.uuid4())
        items = [
            {"order_id": order_id, "product_id": product_id, "quantity": random.randint(1, 4)}
            for product_id in random.sample(product_ids, k=random.randint(1, 3))
        ]
        order = {
            "id": order_id,
            "user_id": f"user_{random.randint(1, 15)}",
            "order_status": random.choices(statuses, weights=weights)[0].value,
            "total_amount": round(random.uniform(1000.0, 12000.0), 2),
            "created_at": (datetime.now() - timedelta(days=random.randint(0, 90))).isoformat(),
        }
        try:
            client.table("orders").insert(order).execute()
            client.table("order_items").insert(items).execute()
            inserted += 1
        except Exception as e:
            print(f"[ERROR] Error inserting order {order_id}: {e}")

    print(f"[OK] Inserted {inserted} orders")
    return inserted


def generate_comments(client, product_ids, num_comments=80):
    """Insert comments; roughly three in four carry a rating."""
    comments = []
    for _ in range(num_comments):
        rating = random.choice([None, 3, 4, 4, 5, 5, 5, 2])
        comments.append({
            "id": str(uuid.uuid4()),
            "product_id": random.choice(product_ids),
            "user_id": f"user_{random.randint(1, 15)}",
            "comment_text": random.choice(COMMENTS),
            "rating": rating,
            "created_at": (datetime.now() - timedelta(days=random.randint(0, 60))).isoformat(),
        })

    batch_size = 50
    inserted = 0
    for i in range(0, len(comments), batch_size):
        batch = comments[i:i + batch_size]
        try:
            client.table("comments").insert(batch).execute()
            inserted += len(batch)
        except Exception as e:
            print(f"[ERROR] Error inserting comments batch: {e}")

    print(f"[OK] Inserted {inserted} comments")
    return inserted


def main():
    """Main function to seed the database."""
    print("Starting database seeding...")
    print("-" * 50)

    client = get_supabase_client()
    if not client:
        print("[ERROR] Failed to connect to Supabase. Check your .env file.")
        sys.exit(1)

    try:
        client.table("products").select("id").limit(1).execute()
    except Exception as e:
        print("[ERROR] Tables may not exist. Run migrations first.")
        print(f"  Error: {e}")
        sys.exit(1)

    print("\nGenerating products...")
    product_ids = generate_products(client)
    if not product_ids:
        sys.exit(1)

    print("\nGenerating orders...")
    generate_orders(client, product_ids)

    print("\nGenerating comments...")
    generate_comments(client, product_ids)

    print("-" * 50)
    print("Seeding complete. Popular products are computed on the next GET /popular.")


if __name__ == "__main__":
    main()
