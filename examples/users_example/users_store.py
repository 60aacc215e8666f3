from pathstorex import create_store
from users_reducers import user_reducer, users_reducer

# 創建Store，路徑樣板對應 reducer
store = create_store(
    reducers={
        "users": users_reducer,
        "users/:id": user_reducer,
    },
)
