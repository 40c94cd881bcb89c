# Configuration file for the Sphinx documentation builder.

import os
import sys
sys.path.insert(0, os.path.abspath('../..'))  # Points to the trislip root

# -- Project information -----------------------------------------------------

project = 'trislip'
release = '0.1.0'

# -- General configuration ---------------------------------------------------

extensions = [
    'sphinx.ext.autodoc',      # API pages from docstrings
    'sphinx.ext.napoleon',     # Google-style Args:/Returns:/Raises: sections
    'sphinx.ext.mathjax',      # Smoothing operator formulas
    'myst_parser',             # Markdown pages
]

# cutde compiles its kernels on import; the API pages do not need it
autodoc_mock_imports = ['cutde']
autodoc_member_order = 'bysource'
napoleon_google_docstring = True
napoleon_numpy_docstring = False

source_suffix = {'.md': 'markdown'}
master_doc = 'index'
exclude_patterns = []

# -- Options for HTML output -------------------------------------------------

html_theme = 'sphinx_rtd_theme'
