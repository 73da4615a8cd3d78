"""Cart line management: commands and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.catalogue.product.product import Product
from storefront.domain import storefront
from storefront.exceptions import NotFound
from storefront.ordering.cart.cart import CartStatus, ShoppingCart
from storefront.persistence import load


@storefront.command(part_of="ShoppingCart")
class AddToCart:
    customer_username = String(required=True, max_length=100)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    customer_username = String(required=True, max_length=100)
    line_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="ShoppingCart")
class RemoveFromCart:
    customer_username = String(required=True, max_length=100)
    line_id = Identifier(required=True)


def active_cart_for(customer_username):
    """Return the customer's active cart, or ``None``."""
    carts = (
        current_domain.repository_for(ShoppingCart)
        ._dao.query.filter(customer_username=customer_username, status=CartStatus.ACTIVE.value)
        .all()
        .items
    )
    return carts[0] if carts else None


@storefront.command_handler(part_of=ShoppingCart)
class ManageCartLinesHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        # Unknown products are rejected before they reach the cart
        load(Product, command.product_id)

        repo = current_domain.repository_for(ShoppingCart)
        cart = active_cart_for(command.customer_username) or ShoppingCart.open_for(command.customer_username)
        cart.add_product(product_id=command.product_id, quantity=command.quantity)
        repo.add(cart)
        return str(cart.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = active_cart_for(command.customer_username)
        if cart is None:
            raise NotFound("ShoppingCart", command.customer_username)
        cart.update_quantity(line_id=command.line_id, quantity=command.quantity)
        repo.add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = active_cart_for(command.customer_username)
        if cart is None:
            raise NotFound("ShoppingCart", command.customer_username)
        cart.remove_line(line_id=command.line_id)
        repo.add(cart)
