"""fancurve - drive a fan from the system temperature through an editable curve"""

import logging

__version__ = "0.1.0"

logging.getLogger('fancurve').addHandler(logging.NullHandler())
