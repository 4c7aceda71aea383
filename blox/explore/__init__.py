"""explore: tutorial experiments built on blox.

Modules:
    hodgkin_huxley    Nernst and GHK potentials, Hodgkin-Huxley f-I curve
    decision_making   Two-choice decision circuit trials and coherence sweeps
"""
