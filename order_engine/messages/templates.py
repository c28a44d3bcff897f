"""Customer-facing WhatsApp replies and back-office notification texts."""

from typing import Optional
from urllib.parse import quote

from order_engine.config import settings
from order_engine.conversation.profile_slots import SlotDefinition
from order_engine.schemas.customer_schema import CustomerProfile, Segment
from order_engine.schemas.order_schema import CartLine, Order, OrderStatus
from order_engine.tools.catalog import format_catalog
from order_engine.utils import format_cop

SEGMENT_LABELS: dict[Segment, str] = {
    Segment.HOME: "hogar",
    Segment.STORE: "tienda",
    Segment.GRILL_HOUSE: "asadero",
    Segment.STANDARD_RESTAURANT: "restaurante estándar",
    Segment.PREMIUM_RESTAURANT: "restaurante premium",
    Segment.WHOLESALER: "mayorista",
}

WELCOME_MESSAGE = "\n".join([
    f"👋 ¡Hola! Bienvenido(a) a *{settings.business.name}*, donde alimentar es amar 💖🐔",
    "",
    "Soy tu asistente virtual y estoy aquí para ayudarte.",
    "Escribe *Pedido* para hacer un pedido.",
    f"📞 Línea de atención: {settings.business.service_line}",
])

SEGMENT_CHOICE_MESSAGE = "\n".join([
    "¿El pedido es para tu hogar o para tu negocio?",
    "",
    "🏠 Escribe *Hogar*",
    "💼 Escribe *Negocios*",
])

BUSINESS_TYPE_MESSAGE = "\n".join([
    "¡Excelente! Atiendo a negocios como tiendas, asaderos, restaurantes y mayoristas.",
    "",
    "¿Qué tipo de negocio tienes?",
    "• Tienda",
    "• Asadero",
    "• Restaurante",
    "• Restaurante premium",
    "• Mayorista",
])

ORDER_CANCELLED_MESSAGE = "❌ Pedido cancelado. Tu carrito quedó vacío.\n\nEscribe *Menú* para volver al inicio."

NO_PRODUCTS_MESSAGE = "\n".join([
    "No pude identificar los productos. Por favor intenta de nuevo.",
    "",
    "Formato: cantidad y producto, separados por comas.",
    "Ejemplo: 2 Pollo Entero, 3 Alitas",
])

EMPTY_CART_MESSAGE = "No tienes productos en tu carrito. Envía tu pedido, por ejemplo: 2 Pollo Entero"

UNKNOWN_CUSTOMER_MESSAGE = "No encontré tu información. Por favor regístrate primero escribiendo *Pedido*."

SERVICE_ERROR_MESSAGE = "❌ Ocurrió un error. Por favor intenta de nuevo en unos minutos."


def build_catalog_message(segment: Optional[Segment]) -> str:
    """Price list plus ordering instructions."""
    lines = ["📋 *Catálogo de productos*", "", format_catalog(segment), ""]
    if segment == Segment.HOME:
        lines.extend([f"🛒 También puedes ver el catálogo en WhatsApp: {settings.business.home_catalog_url}", ""])
    return "\n".join([
        *lines,
        "Escribe tu pedido con cantidad y producto, por ejemplo:",
        "2 Pollo Entero, 3 Alitas",
        "",
        "Escribe *Finalizar* cuando termines o *Cancelar* para salir.",
    ])


def build_registration_prompt(definitions: list[SlotDefinition], example: list[str]) -> str:
    """Ask for every registration field in one message."""
    lines = ["Para hacer tu pedido necesito algunos datos.", "", "Por favor envía:", ""]
    lines.extend(f"*{d.display_name}:*" for d in definitions)
    lines.extend(["", "*Ejemplo:*", *example])
    return "\n".join(lines)


HOME_EXAMPLE = ["Nombre: María García", "Ciudad: Villavicencio", "Dirección: Cra 30 #25-40"]

BUSINESS_EXAMPLE = [
    "Nombre del negocio: Asadero El Sabor",
    "Ciudad o zona: Villavicencio - Centro",
    "Dirección: Calle 38 #30-12",
    "Persona de contacto: Juan Pérez",
    "Productos de interés: Pollo, alitas, muslos",
]


def build_missing_fields_message(missing: list[SlotDefinition], rejected: list[str]) -> str:
    """Retry prompt listing what is still needed."""
    lines = []
    if rejected:
        lines.append(f"⚠️ Revisa estos datos: {', '.join(rejected)}")
        lines.append("")
    lines.append("❌ Por favor completa los siguientes datos:")
    lines.extend(f"*{d.display_name}:*" for d in missing)
    return "\n".join(lines)


def build_registered_message(profile: CustomerProfile) -> str:
    return f"¡Gracias, {profile.display_name}! ✅\n\nTus datos han sido registrados correctamente."


def build_welcome_back_message(profile: CustomerProfile) -> str:
    return f"¡Hola de nuevo, {profile.display_name}! Puedes hacer tu pedido directamente aquí."


def build_segment_kept_message(profile: CustomerProfile) -> str:
    """Reply when a business customer picks the home option."""
    return (
        f"Tu cuenta está registrada como *{SEGMENT_LABELS[profile.segment]}*"
        f" ({profile.display_name}). Mantendremos ese tipo de cuenta para tu pedido."
    )


def _format_lines(lines: list[CartLine]) -> str:
    return "\n".join(f"• {line.quantity}x {line.name} - {format_cop(line.subtotal)}" for line in lines)


def build_cart_added_message(added: list[CartLine], cart: list[CartLine]) -> str:
    """Confirm the lines just added and show the running cart subtotal."""
    subtotal = sum(line.subtotal for line in cart)
    return "\n".join([
        "✅ *Productos agregados:*",
        "",
        _format_lines(added),
        "",
        f"💰 Subtotal: {format_cop(subtotal)}",
        "",
        'Escribe "Finalizar" para completar tu pedido o envía más productos.',
    ])


def build_coordinator_link(order: Order) -> str:
    """wa.me link with a prefilled message for the assigned coordinator."""
    text = (
        f"Hola, soy {order.display_name}. Realicé el pedido {order.order_id} por WhatsApp "
        "y me gustaría coordinar la entrega."
    )
    return f"https://wa.me/{order.assigned_coordinator.contact}?text={quote(text)}"


def build_order_confirmation_message(order: Order) -> str:
    return "\n".join([
        "🎉 *¡PEDIDO CONFIRMADO!*",
        f"Pedido: {order.order_id}",
        "",
        "📋 *Resumen:*",
        _format_lines(order.lines),
        "",
        f"💰 *TOTAL:* {format_cop(order.total)}",
        "",
        f"👨‍💼 *Tu coordinador asignado:* {order.assigned_coordinator.name}",
        f"📞 *Teléfono:* {order.assigned_coordinator.contact}",
        "",
        "🔗 *Haz clic aquí para contactar a tu coordinador:*",
        build_coordinator_link(order),
        "",
        "¡Gracias por tu compra! 🐔💛",
    ])


def build_order_summary(order: Order) -> str:
    """One-line summary stored as a key interaction in the conversation log."""
    products = ", ".join(f"{line.quantity}x {line.name}" for line in order.lines)
    return f"Pedido {order.order_id}: {products} - Total {format_cop(order.total)}"


# --------------------------------------------------------------------- #
# Back-office notification texts
# --------------------------------------------------------------------- #


def build_new_order_notification(segment: Segment, customer_name: Optional[str]) -> str:
    if customer_name:
        return f"Nuevo pedido de {customer_name} ({segment.value})"
    return f"Nuevo pedido de cliente tipo {segment.value}"


def build_order_closed_notification(order: Order) -> str:
    verb = "completado" if order.status == OrderStatus.COMPLETED else "cancelado"
    return f"Pedido {order.order_id} de {order.display_name} {verb}"


def build_account_notification(email: str, name: Optional[str], deleted: bool) -> str:
    action = "eliminado" if deleted else "desactivado"
    if name:
        return f"Usuario {name} ({email}) ha sido {action}"
    return f"Usuario {email} ha sido {action}"
