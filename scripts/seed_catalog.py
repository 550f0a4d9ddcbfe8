"""Loads a sample artisan catalog (or a JSON file of products) into the local search database."""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from dotenv import load_dotenv
from artisan_search.config import SearchConfig
from artisan_search.db import MarketplaceDB
from artisan_search.models import CatalogItem


SAMPLE_PRODUCTS: list[dict] = [
    {
        "id": "p-1001",
        "name": "Traditional Blue Pottery Vase",
        "description": "Hand-painted blue pottery vase with floral motifs, glazed in the Jaipur tradition.",
        "category": "Pottery",
        "price": 1200,
        "tags": ["blue pottery", "vase", "home decor", "gift"],
        "colors": ["blue", "white"],
        "materials": ["quartz", "glass"],
        "views": 420,
        "likes": 37,
        "rating": 4.6,
        "is_customizable": False,
        "quantity_available": 8,
        "seller_location": "Jaipur, Rajasthan",
        "craft_type": "Blue Pottery",
    },
    {
        "id": "p-1002",
        "name": "Handwoven Silk Scarf",
        "description": "Soft silk scarf woven on a pit loom with a traditional temple border.",
        "category": "Textiles",
        "price": 850,
        "tags": ["scarf", "silk", "handwoven", "gift"],
        "colors": ["red", "golden"],
        "materials": ["silk"],
        "views": 310,
        "likes": 22,
        "rating": 4.4,
        "is_customizable": False,
        "quantity_available": 15,
        "seller_location": "Varanasi, Uttar Pradesh",
        "craft_type": "Handloom Weaving",
    },
    {
        "id": "p-1003",
        "name": "Silver Oxidized Earrings",
        "description": "Oxidized silver jhumka earrings with hand-engraved detailing.",
        "category": "Jewelry",
        "price": 450,
        "tags": ["earrings", "jhumka", "silver", "festival"],
        "colors": ["silver"],
        "materials": ["silver"],
        "views": 780,
        "likes": 95,
        "rating": 4.8,
        "is_customizable": False,
        "quantity_available": 30,
        "seller_location": "Cuttack, Odisha",
        "craft_type": "Filigree",
    },
    {
        "id": "p-1004",
        "name": "Terracotta Diwali Diya Set",
        "description": "Set of twelve hand-shaped terracotta diyas painted for Diwali decoration.",
        "category": "Pottery",
        "price": 350,
        "tags": ["diya", "diwali", "festival", "decoration"],
        "colors": ["orange", "yellow"],
        "materials": ["terracotta"],
        "views": 990,
        "likes": 140,
        "rating": 4.7,
        "is_customizable": False,
        "quantity_available": 60,
        "seller_location": "Kutch, Gujarat",
        "craft_type": "Terracotta",
    },
    {
        "id": "p-1005",
        "name": "Channapatna Wooden Toy Train",
        "description": "Lacquered wooden toy train made with natural dyes, safe for children.",
        "category": "Woodwork",
        "price": 650,
        "tags": ["toy", "wooden", "kids", "eco-friendly"],
        "colors": ["red", "green", "yellow"],
        "materials": ["wood", "lacquer"],
        "views": 530,
        "likes": 61,
        "rating": 4.5,
        "is_customizable": False,
        "quantity_available": 20,
        "seller_location": "Channapatna, Karnataka",
        "craft_type": "Lacquerware",
    },
    {
        "id": "p-1006",
        "name": "Brass Pooja Thali",
        "description": "Engraved brass pooja thali with bell, diya and kumkum holders.",
        "category": "Metalwork",
        "price": 1800,
        "tags": ["pooja", "brass", "thali", "festival"],
        "colors": ["golden"],
        "materials": ["brass"],
        "views": 610,
        "likes": 48,
        "rating": 4.3,
        "is_customizable": True,
        "quantity_available": 12,
        "seller_location": "Moradabad, Uttar Pradesh",
        "craft_type": "Brass Engraving",
    },
    {
        "id": "p-1007",
        "name": "Madhubani Painting - Tree of Life",
        "description": "Hand-painted Madhubani artwork on handmade paper using natural colors.",
        "category": "Paintings",
        "price": 3200,
        "tags": ["madhubani", "wall art", "folk art"],
        "colors": ["red", "green", "black"],
        "materials": ["handmade paper", "natural pigments"],
        "views": 270,
        "likes": 41,
        "rating": 4.9,
        "is_customizable": True,
        "quantity_available": 3,
        "seller_location": "Madhubani, Bihar",
        "craft_type": "Madhubani",
    },
    {
        "id": "p-1008",
        "name": "Personalised Wooden Name Plate",
        "description": "Sheesham wood name plate carved to order for homes and offices.",
        "category": "Woodwork",
        "price": 1500,
        "tags": ["name plate", "personalised", "home decor"],
        "colors": ["brown"],
        "materials": ["sheesham wood"],
        "views": 180,
        "likes": 12,
        "rating": 4.2,
        "is_customizable": True,
        "quantity_available": 25,
        "seller_location": "Saharanpur, Uttar Pradesh",
        "craft_type": "Wood Carving",
    },
    {
        "id": "p-1009",
        "name": "Bamboo Storage Basket",
        "description": "Eco-friendly handwoven bamboo basket with lid.",
        "category": "Weaving",
        "price": 550,
        "tags": ["basket", "bamboo", "eco-friendly", "storage"],
        "colors": ["natural"],
        "materials": ["bamboo"],
        "views": 150,
        "likes": 9,
        "rating": 4.1,
        "is_customizable": False,
        "quantity_available": 40,
        "seller_location": "Majuli, Assam",
        "craft_type": "Bamboo Weaving",
    },
    {
        "id": "p-1010",
        "name": "Dhokra Tribal Horse Figurine",
        "description": "Lost-wax cast bronze horse figurine by Dhokra artisans.",
        "category": "Sculptures",
        "price": 2400,
        "tags": ["dhokra", "tribal", "figurine", "decoration"],
        "colors": ["golden", "brown"],
        "materials": ["bronze"],
        "views": 205,
        "likes": 30,
        "rating": 4.6,
        "is_customizable": False,
        "quantity_available": 0,
        "seller_location": "Bastar, Chhattisgarh",
        "craft_type": "Dhokra",
    },
]


def load_products(path: Path | None) -> list[CatalogItem]:
    rows = SAMPLE_PRODUCTS
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Catalog file not found: {path}")
        rows = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(rows, list):
            raise ValueError("Catalog file must contain a JSON array of products.")
    return [CatalogItem(**row) for row in rows]


def main() -> None:
    load_dotenv(Path(__file__).resolve().parents[1] / ".env")

    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--db",
        default="",
        help="SQLite database path (defaults to AS_DB_PATH or data/artisan_search.db).",
    )
    parser.add_argument(
        "--from-json",
        default="",
        help="Path to a JSON array of products; the built-in sample catalog is used when omitted.",
    )
    args = parser.parse_args()

    db_path = Path(os.path.expanduser(args.db)).resolve() if args.db else SearchConfig.from_env().db_path
    source = Path(os.path.expanduser(args.from_json)).resolve() if args.from_json else None

    products = load_products(source)
    db = MarketplaceDB(db_path)
    db.upsert_catalog(products)
    print(f"Loaded {len(products)} products into {db_path}")


if __name__ == "__main__":
    main()
