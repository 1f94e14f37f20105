"""Structural properties of reaction networks.

Submodules
----------
- :mod:`~crnkit.CRN.Props.stoich` -- stoichiometric and complex composition matrices
- :mod:`~crnkit.CRN.Props.incidence` -- incidence matrix, outgoing matrix, incidence graph
- :mod:`~crnkit.CRN.Props.linkage` -- linkage classes and reversibility
- :mod:`~crnkit.CRN.Props.deficiency` -- deficiency, subnetworks, :class:`DeficiencyAnalyzer`
- :mod:`~crnkit.CRN.Props.conservation` -- integer conservation laws
- :mod:`~crnkit.CRN.Props.balance` -- complex and detailed balance
- :mod:`~crnkit.CRN.Props.robustness` -- absolute concentration robustness
"""
