"""dnsledger package"""

# Re-export the stores subpackage so dotted paths like 'dnsledger.stores.*'
# work with tooling that traverses attributes instead of using importlib.
from . import stores as stores
