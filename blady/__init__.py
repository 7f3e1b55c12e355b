"""
Blady - personal WhatsApp automation agent.
"""

__version__ = "0.1.0"
__logo__ = "🗡️"
__title__ = "Blady"
