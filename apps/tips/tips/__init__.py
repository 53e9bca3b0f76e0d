"""
Performance and reliability tips for serverless functions

This module shows where to put work so instances reuse it, how to reuse
outbound connections, and how event functions control retries.

Run with: python -m fnscope.runtime tips
"""

from .scopes import *
from .agents import *
from .retries import *
