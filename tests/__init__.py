# SPDX-License-Identifier: Apache-2.0
"""
surrealvec test suite.

Unit tests for the filter compiler, query builder, result decoder and index
guard, plus end-to-end store tests over an in-memory SurrealDB double.
"""
