"""Models Package - Export all enums for easy imports"""

from billing_core.models.enums import *
