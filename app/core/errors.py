class GameError(Exception):
    """Базовая ошибка игры: сообщение уходит клиенту как есть."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(GameError):
    """Некорректный или неполный ввод (режим, карточки, ответ)."""

    status_code = 400


class NotFoundError(GameError):
    """Нет колоды, сессии или вопроса там, где они ожидались."""

    status_code = 404


class StateConflictError(GameError):
    """Операция не подходит к текущему состоянию сессии."""

    status_code = 409


class StorageError(GameError):
    """Хранилище недоступно или операция с ним упала."""

    status_code = 503
