"""Custom exceptions for the store API."""


class ShopError(Exception):
    """Base exception for all store errors."""

    pass


class InvalidQuantityError(ShopError):
    """Raised when a cart quantity edit goes below 1."""

    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__(f"Quantity must be at least 1 (got {quantity})")


class LineItemNotFoundError(ShopError):
    """Raised when a cart edit targets an id that is not in the cart."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not in cart: {item_id}")


class ProductNotFoundError(ShopError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class ProductUnavailableError(ShopError):
    """Raised when adding a product whose availability flag is off."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Product is not available: {name}")


class CartConflictError(ShopError):
    """Raised when a conditional cart write keeps losing to another session."""

    def __init__(self, email: str, attempts: int):
        self.email = email
        self.attempts = attempts
        super().__init__(
            f"Cart for {email} was modified concurrently ({attempts} attempts). Please retry."
        )


class ImageRequiredError(ShopError):
    def __init__(self, new_product: bool = True):
        msg = "An image is required for new products." if new_product else "An image is required."
        super().__init__(msg)


class ImageUploadError(ShopError):
    def __init__(self, filename: str):
        self.filename = filename
        super().__init__("Failed to upload image.")


class ProductSaveError(ShopError):
    def __init__(self):
        super().__init__("Failed to save product. Please try again.")


class ConfirmationRequiredError(ShopError):
    """Raised when a product delete arrives without explicit confirmation."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            "Are you sure you want to delete this product? This action cannot be undone. "
            "Repeat the request with confirm=true."
        )


class InvalidCategoryError(ShopError):
    def __init__(self, category: str, subcategory: str):
        self.category = category
        self.subcategory = subcategory
        super().__init__(f"Subcategory '{subcategory}' does not belong to category '{category}'")


class StoreUnavailableError(ShopError):
    """Raised when a read the request depends on fails."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Data service unavailable while {operation}")
