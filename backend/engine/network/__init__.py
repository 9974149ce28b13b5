"""Network fault analysis module for FaultFlow.

Provides component impedance models, voltage-level referral, radial
topology and Thevenin aggregation, IEEE/ANSI and IEC 60909 short-circuit
currents, motor contribution and IEEE 1584 arc-flash evaluation.
"""
