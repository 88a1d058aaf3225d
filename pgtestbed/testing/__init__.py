"""Running extension tests against the shared server.

Entry points live in ``pgtestbed.testing.runner`` (``run_test``,
``TestRunner``) and ``pgtestbed.testing.query`` (``query_wrapper``). The
package itself imports nothing so that ``pgtestbed.instances`` can use
the session helpers without an import cycle.
"""
