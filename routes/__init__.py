# ========================================================
# routes/__init__.py
# ========================================================
from routes import payments, reward_questions, rewards

__all__ = ["payments", "reward_questions", "rewards"]
