from __future__ import annotations

from .models import Mode, ModelType

# Within each vocabulary no entry may be a substring of another entry:
# matching accepts any input that contains an entry, first entry wins.

MODEL_TYPE_LABELS = {
    ModelType.WORLD: "Мировая модель",
    ModelType.NATIONAL: "Российская модель (Н.Н.)",
}

MODE_LABELS = {
    Mode.SINGLE: "Ввести одно время",
    Mode.ACCUMULATE: "Создать файл с результатами",
}

BOAT_CLASSES = [
    "1х о/в",
    "1х л/в",
    "2- о/в",
    "2- л/в",
    "2х о/в",
    "2х л/в",
    "4-",
    "4х о/в",
    "4х л/в",
    "4+",
    "8+",
]

DISTANCES = {
    "500 м": 500,
    "1000 м": 1000,
    "2000 м": 2000,
    "5000 м": 5000,
    "6000 м": 6000,
}

CANCEL = "Отмена"

ACTION_MORE_TIME = "Ввести еще время"
ACTION_NEW_NAME = "Новое имя"
ACTION_EXPORT = "Завершить и получить Excel"
ACTION_EDIT_LAST = "Редактировать последнее время"
ACTION_HISTORY = "Просмотреть историю"

NEXT_ACTIONS = [
    ACTION_MORE_TIME,
    ACTION_NEW_NAME,
    ACTION_EXPORT,
    ACTION_EDIT_LAST,
    ACTION_HISTORY,
]

DEFAULT_SETTINGS = {"language": "ru"}

TIME_FORMAT_HINT = "Введите время в формате СС.сс или ММ:СС.сс (например, 45.55 или 7:45.55)"

MESSAGES = {
    "select_model": "Выберите тип модели:",
    "select_mode": "Выберите режим работы:",
    "enter_name": "Введите имя или фамилию:",
    "select_age": "Выберите возрастную категорию:",
    "select_distance": "Выберите дистанцию",
    "select_boat": "Выберите класс лодки",
    "enter_time": TIME_FORMAT_HINT,
    "invalid_model": "Пожалуйста, выберите тип модели из предложенных вариантов",
    "invalid_mode": "Пожалуйста, выберите режим из предложенных вариантов",
    "invalid_name": "Имя не может быть пустым. Введите имя или фамилию:",
    "invalid_age": "Пожалуйста, выберите категорию из предложенных вариантов",
    "invalid_distance": "Пожалуйста, выберите дистанцию из предложенных вариантов",
    "invalid_boat": "Пожалуйста, выберите класс лодки из предложенных вариантов",
    "invalid_time": (
        "Пожалуйста, введите время в формате СС.сс или ММ:СС.сс (например, 45.55 или 7:45.55). "
        "Также можно использовать формат ММ.СС.сс (например, 7.45.55). Секунды не могут быть больше 59."
    ),
    "invalid_action": "Пожалуйста, выберите действие из предложенных вариантов",
    "select_action": "Выберите действие:",
    "time_result": "ваше время: {time}\nваша модель: {percentage}%",
    "no_baseline": "Для выбранной категории и лодки нет модельного времени, процент не рассчитан.",
    "model_error": "Ошибка при расчете модели. Пожалуйста, попробуйте снова.",
    "not_saved": "Результат показан, но не сохранен из-за технической ошибки. Попробуйте еще раз.",
    "no_results": "Нет результатов для редактирования",
    "current_time": "Текущее время: {time}\nВведите новое время:",
    "time_updated": "Время успешно обновлено: {time}, модель {percentage}%",
    "history_empty": "История пуста",
    "history_header": "Результаты текущей сессии:",
    "history_line": "{index}. {name}: {time} ({percentage}%)",
    "export_done": "Excel файл с результатами создан. Используйте /start для нового набора данных.",
    "export_caption": "Спортсменов: {athletes}, результатов: {attempts}, средняя модель: {average}%",
    "excel_error": "Произошла ошибка при создании Excel файла. Пожалуйста, попробуйте снова.",
    "no_data_for_excel": "Нет данных для создания Excel файла. Используйте /start для начала.",
    "generic_error": "Произошла ошибка при обработке сообщения. Попробуйте еще раз.",
    "session_reset": "Текущая сессия сброшена. Напишите /start, чтобы начать заново.",
    "no_session": "Активная сессия не найдена.",
    "backup_done": "Резервная копия данных создана",
    "backup_unavailable": "Резервная копия не создана (функция недоступна)",
    "restore_unavailable": "Резервные копии недоступны",
    "restore_empty": "Нет доступных резервных копий",
    "restore_done": "Данные восстановлены из последней резервной копии",
    "restore_failed": "Ошибка при восстановлении данных",
}
