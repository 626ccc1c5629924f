from ._decision_tree import DecisionTree as DecisionTree
from ._decision_tree import enumerate_assignments as enumerate_assignments
from ._graph_tree import GaussianFactorGraphTree as GaussianFactorGraphTree
from ._graph_tree import GraphAndConstant as GraphAndConstant
from ._graph_tree import format_graph_tree as format_graph_tree
from ._graph_tree import graph_tree_equals as graph_tree_equals
from ._graph_tree import make_graph_tree as make_graph_tree
from ._graph_tree import sum_graph_trees as sum_graph_trees
from ._hybrid_factor import ContinuousScope as ContinuousScope
from ._hybrid_factor import DiscreteScope as DiscreteScope
from ._hybrid_factor import FactorScope as FactorScope
from ._hybrid_factor import HybridFactor as HybridFactor
from ._hybrid_factor import HybridScope as HybridScope
from ._hybrid_factor import make_scope as make_scope
from ._keys import DiscreteKey as DiscreteKey
from ._keys import Key as Key
from ._keys import KeyFormatter as KeyFormatter
from ._keys import cardinalities as cardinalities
from ._keys import default_key_formatter as default_key_formatter
from ._keys import merge_continuous_keys as merge_continuous_keys
from ._keys import merge_discrete_keys as merge_discrete_keys
from ._keys import symbol as symbol
from ._keys import symbol_char as symbol_char
from ._keys import symbol_index as symbol_index
from ._linear import DiagonalGaussian as DiagonalGaussian
from ._linear import GaussianFactorGraph as GaussianFactorGraph
from ._linear import JacobianFactor as JacobianFactor
from ._values import HybridValues as HybridValues
