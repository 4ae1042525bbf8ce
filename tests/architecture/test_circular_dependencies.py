import subprocess
import sys

import pytest

# Leaf modules first, the package last
MODULES = [
    'fluentdb.exceptions',
    'fluentdb.types',
    'fluentdb.strategy.base',
    'fluentdb.strategy',
    'fluentdb.options',
    'fluentdb.expression.base',
    'fluentdb.expression',
    'fluentdb.statement',
    'fluentdb.query',
    'fluentdb.table',
    'fluentdb.schema',
    'fluentdb.transaction',
    'fluentdb.record',
    'fluentdb.junction',
    'fluentdb.migrator',
    'fluentdb.connection',
    'fluentdb',
]


@pytest.mark.parametrize('module', MODULES)
def test_module_imports_on_its_own(module):
    """Each module imports first in a fresh interpreter, without circular dependencies"""
    proc = subprocess.run([sys.executable, '-c', f'import {module}'],
                          capture_output=True, text=True, check=False)
    assert proc.returncode == 0, proc.stderr
