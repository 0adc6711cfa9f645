# domain/cart/schema.py
"""Fixed enumerations and defaults shared by the cart codecs and rules."""

TOPPING_AMOUNTS = ("none", "light", "normal", "extra", "xxtra")
DEFAULT_TOPPING_AMOUNT = "normal"

# amounts that turn a free variant default into a charged topping
UPGRADE_AMOUNTS = ("extra", "xxtra")

DEFAULT_TOPPING_CATEGORY = "other"
UNKNOWN_ITEM_NAME = "Unknown Item"

# ---- pizza variant rules ----
STUFFED_ALIASES = frozenset({"stuffed pizza", "the chub"})
STUFFED_SIZES = ("small", "medium", "large")
STUFFED_CRUSTS = ("stuffed",)
STANDARD_CRUSTS = ("thin", "double_dough", "gluten_free")

# persisted order_items columns produced by the transformer
ORDER_LINE_COLUMNS = (
    "order_id",
    "menu_item_id",
    "menu_item_variant_id",
    "quantity",
    "unit_price",
    "total_price",
    "selected_toppings_json",
    "selected_modifiers_json",
    "special_instructions",
)
