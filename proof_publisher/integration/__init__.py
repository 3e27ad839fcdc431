"""
IO shell: guest registry, prover backends, chain submission, configuration.
"""
