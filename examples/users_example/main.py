import json

from pathstorex import SubscriberResult, to_dict
from users_reducers import load_users, rename, visit
from users_store import store


def print_change(event):
    print(f"[{event['name']}] {event['path']}: {json.dumps(to_dict(event['payload']), ensure_ascii=False)}")


def print_user(event):
    print(f"用戶 {event['context']['id']} 更新: {to_dict(event['payload'])}")


def first_visit(event):
    print(f"第一次拜訪: {event['context']['id']}")
    return SubscriberResult.REMOVE


if __name__ == "__main__":
    # 訂閱事件
    store.subscribe("reducer.change", print_change, path="users")
    store.subscribe("user.visit", print_user, path="users/:id", projection={"name": "name", "visits": "visits"})
    store.subscribe("user.visit", first_visit, path="users/:id")

    # 訂閱狀態變化
    store.select("users/1/name").subscribe(
        on_next=lambda t: print(f"名稱變化: {t[0]} -> {t[1]}")
    )

    print("\n==== 批次載入 ====")
    store.do(load_users({"1": {"name": "Ada"}, "2": {"name": "Bob"}}))

    print("\n==== 單一路徑更新 ====")
    store.do(visit(context={"id": 1}))
    store.do(visit(context={"id": 1}))
    store.do(rename("Ada Lovelace", context={"id": 1}))

    # 打印最終狀態
    print("\n==== 最終狀態 ====")
    store.print_state()
