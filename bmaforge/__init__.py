from bmaforge.errors import *
from bmaforge.utils import *
from bmaforge.boolean_formula import *
from bmaforge.expression import *
from bmaforge.tokenizer import *
from bmaforge.parser import *
from bmaforge.regulatory_graph import *
from bmaforge.bma_network import *
from bmaforge.bma_model import *
from bmaforge.boolean_network import *

try:
    from bmaforge._version import __version__
except ImportError:
    __version__ = 'unknown'
