"""
SQL expression trees.
"""
from fluentdb.expression.base import Expression as Expression
from fluentdb.expression.base import Fragment as Fragment
from fluentdb.expression.base import Identifier as Identifier
from fluentdb.expression.base import QuoteKind as QuoteKind
from fluentdb.expression.base import Slot as Slot
from fluentdb.expression.base import classify as classify
from fluentdb.expression.base import quote as quote
from fluentdb.expression.base import quote_list as quote_list
from fluentdb.expression.base import slots as slots
from fluentdb.expression.fluent import DateTime as DateTime
from fluentdb.expression.fluent import DateTimeMixin as DateTimeMixin
from fluentdb.expression.fluent import Numeric as Numeric
from fluentdb.expression.fluent import NumericMixin as NumericMixin
from fluentdb.expression.fluent import Predicate as Predicate
from fluentdb.expression.fluent import Text as Text
from fluentdb.expression.fluent import TextMixin as TextMixin
from fluentdb.expression.fluent import Value as Value
from fluentdb.expression.fluent import ValueMixin as ValueMixin
from fluentdb.expression.fluent import all_ as all_
from fluentdb.expression.fluent import any_ as any_
from fluentdb.expression.fluent import as_predicate as as_predicate
from fluentdb.expression.fluent import match as match
from fluentdb.expression.fluent import match_all as match_all
