"""Pytest fixtures for core trace tests."""

import pytest

from tests.core.trace_test_helpers import MemoryFilesystem

SAMPLE_SOURCE = """\
#include <stdio.h>

static int helper(int x)
{
    return x * 2;
}

int main(void)
{
    printf("%d\\n", helper(21));
    return 0;
}
"""


@pytest.fixture
def sample_source():
    """Contents of /src/main.c used by most parser tests."""
    return SAMPLE_SOURCE


@pytest.fixture
def fs(sample_source):
    """In-memory filesystem holding /src/main.c and /x.c."""
    return MemoryFilesystem(
        {
            "/src/main.c": sample_source,
            "/x.c": "int f(void) { return 0; }\n",
            "/a.c": "line one\nline two\n",
        }
    )
