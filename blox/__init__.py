"""blox: compose neurons, neural masses and sources into simulatable circuits.

Components ("Bloxs") are wired into a directed weighted graph; connection
rules chosen by the pair of component kinds turn each edge into coupling
terms and discrete events; the graph compiles into one flat system that
an external integrator solves.

Subpackages:
    components    Blox data model, kind hierarchy and factories
    connections   Kind-pair connection rules and the resolver
    graph         Graph container and the graph-to-system compiler
    simulation    Initial-value problems, integration drivers, stimuli
                  and derived views over solutions
    explore       Tutorial experiments built on the core
    utils         Logging
"""

__version__ = "0.1.0"
