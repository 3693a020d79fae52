from django import template

register = template.Library()


@register.filter
def vnd(value):
    """25000 -> '25.000 ₫'"""
    try:
        amount = int(value)
    except (TypeError, ValueError):
        return "0 ₫"
    return f"{amount:,} ₫".replace(",", ".")
