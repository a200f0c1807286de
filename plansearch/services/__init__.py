"""Search services: candidate generation, amplification, selection, pairing,
plateau escape and the PlanOptimizationService facade."""
