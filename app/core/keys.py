# Ключи хранилища. Формат совпадает с тем, что пишет клиентская часть игры.


def session_key(instance_id: str, user_id: str) -> str:
    return f"game:{instance_id}:player:{user_id}"


def stats_key(instance_id: str, question_id: str) -> str:
    return f"stats:{instance_id}:{question_id}"


def stats_total_key(instance_id: str, question_id: str) -> str:
    return f"{stats_key(instance_id, question_id)}:total"


def leaderboard_key(instance_id: str) -> str:
    return f"leaderboard:{instance_id}"


def leaderboard_entry_key(instance_id: str, user_id: str) -> str:
    return f"{leaderboard_key(instance_id)}:{user_id}"


def deck_key(instance_id: str) -> str:
    return f"deck:{instance_id}"
