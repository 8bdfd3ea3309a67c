# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# -- Project information -----------------------------------------------------

project = 'sSection'
copyright = '2026'
author = 'sSection contributors'
release = '0.1.0'

# -- General configuration ---------------------------------------------------

extensions = [
    'numpydoc',
    'sphinx.ext.autodoc',
    'sphinx.ext.doctest',
    'sphinx.ext.intersphinx',
    'sphinx.ext.mathjax',
    'sphinx_copybutton',
]
exclude_patterns = []

# Define the global role :python:``.
rst_prolog = """
.. role:: python(code)
    :language: python
"""

autodoc_typehints = 'none'
autodoc_default_options = {
    'members': None,
    'show-inheritance': None,
}
numpydoc_show_class_members = False
intersphinx_mapping = {
    'matplotlib': ('https://matplotlib.org/stable', None),
    'numpy': ('https://numpy.org/doc/stable', None),
    'python': ('https://docs.python.org/3', None),
    'shapely': ('https://shapely.readthedocs.io/en/stable', None),
}
doctest_global_setup = 'from ssection import *'

# -- Options for HTML output -------------------------------------------------

html_theme = 'sphinx_book_theme'
