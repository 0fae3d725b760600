"""Write paths for orders and comments; each invalidates the popularity cache."""

from .orders import place_order, change_order_status
from .comments import add_comment, edit_comment, remove_comment, list_product_comments

__all__ = [
    "place_order",
    "change_order_status",
    "add_comment",
    "edit_comment",
    "remove_comment",
    "list_product_comments",
]
