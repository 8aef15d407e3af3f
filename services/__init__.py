# ========================================================
# services/__init__.py
# ========================================================
"""
Business Logic Services.

Contains reusable service modules decoupled from the HTTP routes:

- allocator.py: answer scoring, atomic winner-slot reservation, points awards
- disbursement.py: winner payouts (token → transfer → settlement → ledger)
- settlement.py: fixed-interval status polling until a terminal state
- providers/: MTN and Airtel API clients behind one gateway
- payments.py: subscription collections, manual payouts, payment history
- reward_questions.py: reward question create / list / update / delete
- rewards.py: points ledger queries
"""
